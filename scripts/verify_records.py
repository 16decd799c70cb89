"""
Smoke test against a running backend (uvicorn app.main:app in backend/).

Logs in as the default admin, imports two rows for the same plan id,
checks the upsert kept only the second one, then deletes the test record.
"""
import httpx
import os
import sys

BASE_URL = os.getenv("API_URL", "http://127.0.0.1:8000/api")
USERNAME = os.getenv("ADMIN_USERNAME", "admin")
PASSWORD = os.getenv("ADMIN_PASSWORD", "admin123")
PLAN_ID = "VERIFY-PLAN-0001"

def check(condition, message):
    print(f"[{'PASS' if condition else 'FAIL'}] {message}")
    if not condition:
        sys.exit(1)

def verify_records():
    r = httpx.post(f"{BASE_URL}/auth/login", json={"username": USERNAME, "password": PASSWORD}, timeout=10)
    check(r.status_code == 200, f"Login as {USERNAME} ({r.status_code})")
    headers = {"Authorization": f"Bearer {r.json()['token']}"}

    r = httpx.get(f"{BASE_URL}/auth/verify", headers=headers, timeout=10)
    check(r.status_code == 200, "Token verification")

    batch = {
        "data": [
            {"计划ID": PLAN_ID, "开始时间": "2024-01-01 08:00:00", "任务结果状态": "正常"},
            {"计划ID": PLAN_ID, "开始时间": "2024-01-02 09:00:00", "任务结果状态": "未跟踪"},
        ],
        "mode": "append",
        "validate": True,
    }
    r = httpx.post(f"{BASE_URL}/import/batch", json=batch, headers=headers, timeout=30)
    check(r.status_code == 200, f"Batch import: {r.json()}")

    r = httpx.get(f"{BASE_URL}/records", params={"planId": PLAN_ID}, timeout=10)
    records = r.json()["records"]
    check(len(records) == 1, f"Exactly one record for {PLAN_ID}")
    check(records[0]["task_result"] == "未跟踪", "Second import won")
    check(records[0]["start_time"].startswith("2024-01-02T09:00:00"), f"Start time {records[0]['start_time']}")

    r = httpx.get(f"{BASE_URL}/stats", timeout=10)
    stats = r.json()
    print(f"  Stats: {stats}")
    check(0 <= float(stats["success_rate"]) <= 100, "Success rate within 0..100")

    r = httpx.get(f"{BASE_URL}/export", params={"planId": PLAN_ID, "format": "json"}, headers=headers, timeout=30)
    check(r.status_code == 200 and r.json()["data"][0]["开始时间"] == "2024/01/02 09:00:00", "JSON export")

    r = httpx.delete(f"{BASE_URL}/records/{PLAN_ID}", headers=headers, timeout=10)
    check(r.status_code == 200, "Cleanup of test record")

if __name__ == "__main__":
    verify_records()
