from flask import current_app, request

from circulation.errors import InvalidInput


def services():
    return current_app.extensions["circulation"]


def int_value(value, name: str, required: bool = True):
    if value is None or value == "":
        if required:
            raise InvalidInput(f"{name} is required")
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidInput(f"{name} must be an integer")


def page_args():
    return {
        "page": request.args.get("page", 1),
        "limit": request.args.get("limit"),
    }
