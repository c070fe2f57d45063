"""
Inventory Sync Service — Webhook 署名検証

受信した生のバイト列に対して HMAC-SHA256 を計算し、Base64 で
エンコードしてヘッダの値と定数時間比較する。
JSON を再シリアライズすると署名が一致しなくなるため、必ず受信した
バイト列そのものを使う。
"""

import base64
import hashlib
import hmac


def compute_signature(raw_body: bytes, secret: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_webhook(raw_body: bytes, claimed: str | None, secret: str) -> bool:
    """一致すれば True。入力が不正でも例外は出さず False を返す。"""
    if not claimed or not secret or not isinstance(raw_body, (bytes, bytearray)):
        return False
    try:
        expected = compute_signature(bytes(raw_body), secret)
        return hmac.compare_digest(expected.encode("ascii"), claimed.strip().encode("ascii"))
    except (UnicodeEncodeError, TypeError, ValueError):
        return False
