import base64
import hashlib
import hmac
import json
import pathlib
import urllib.parse
from typing import Any

TEST_DIR = pathlib.Path(__file__).parent
TEST_DATA_DIR = TEST_DIR / "data"


def load_text_file(path: str, encoding: str = "utf-8") -> str:
    return (TEST_DATA_DIR / path).read_text(encoding=encoding)


def load_json_file(path: str) -> Any:
    return json.loads(load_text_file(path))


def oauth_signature(url: str, params: dict[str, str], secret: str) -> str:
    """HMAC-SHA1 signature of a form post, computed per RFC 5849."""

    def enc(value: str) -> str:
        return urllib.parse.quote(value, safe="~")

    pairs = sorted((enc(k), enc(v)) for k, v in params.items() if k != "oauth_signature")
    normalized = "&".join(f"{k}={v}" for k, v in pairs)
    base_string = "&".join(("POST", enc(url), enc(normalized)))
    digest = hmac.new(f"{enc(secret)}&".encode(), base_string.encode(), hashlib.sha1)
    return base64.b64encode(digest.digest()).decode()
