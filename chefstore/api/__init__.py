from typing import Dict

from flask import request


def request_payload() -> Dict:
    """JSON body, falling back to form fields for multipart requests."""
    payload = request.get_json(silent=True)
    if isinstance(payload, dict):
        return payload
    return request.form.to_dict()
