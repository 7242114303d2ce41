from typing import Any


def success_response(data: Any = None, message: str | None = None) -> dict:
    return {"status": "success", "data": data, "message": message}


def error_response(message: str, data: Any = None) -> dict:
    return {"status": "error", "data": data, "message": message}


def progress_percent(completed: int, total: int) -> int:
    if total <= 0:
        return 100
    return round(completed / total * 100)
