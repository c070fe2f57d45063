"""
Inventory Sync Service — エラー分類

  Unauthorized      署名不一致。再送しても同じ資格情報では通らない
  Malformed         本文が壊れている／必須項目欠落。恒久的失敗
  NotFound          在庫アイテムの解決チェーンが尽きた
  UpstreamFailure   リモートストアの通信エラー・ユーザーエラー（一時的）

プロセッサは内部リトライを行わない。イベント全体を失敗させ、
送信元の再送に任せる。
"""


class ReconciliationError(Exception):
    code = "error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.code)
        self.message = message or self.code


class Unauthorized(ReconciliationError):
    code = "unauthorized"


class Malformed(ReconciliationError):
    code = "malformed"


class NotFound(ReconciliationError):
    code = "not_found"


class UpstreamFailure(ReconciliationError):
    code = "upstream_failure"


class MarkProcessedFailure(UpstreamFailure):
    """在庫は減算済みだが処理済みマーカーの書き込みに失敗した。"""

    code = "mark_processed_failure"


# ── リモートストアクライアントのエラー ───────────


class StoreError(Exception):
    pass


class TransportError(StoreError):
    pass


class GraphQLError(StoreError):
    def __init__(self, errors: list) -> None:
        super().__init__(f"GraphQL errors: {errors}")
        self.errors = errors


class UserErrorsError(StoreError):
    def __init__(self, operation: str, user_errors: list[dict]) -> None:
        messages = "; ".join(e.get("message", "") for e in user_errors)
        super().__init__(f"{operation} returned user errors: {messages}")
        self.operation = operation
        self.user_errors = user_errors
