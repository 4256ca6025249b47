from datetime import datetime

from tontine.core.config import LOGS_DIR


def write_audit_log(user_name: str, action: str, details: str = "", group_name: str = "-"):
    LOGS_DIR.mkdir(parents=True, exist_ok=True)
    month_str = datetime.now().strftime("%Y_%m")
    log_file = LOGS_DIR / f"audit_{month_str}.log"
    ts = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    with open(log_file, "a", encoding="utf-8") as f:
        f.write(f"{ts} | {group_name} | {user_name} | {action} | {details}\n")
