"""Classification of analyzer failures into user-facing error alerts.

Classification matches substrings and status-code tokens in the raw error
text. Rules are checked in order and the first match wins, so auth problems
are reported before quota, quota before rate limiting, and so on.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from screen_assistant.alerts.protocol import ModelErrorAlert


@dataclass(frozen=True)
class ErrorRule:
    error_type: str
    message: str
    suggestion: str
    # Matched against the lower-cased error text
    tokens: tuple[str, ...] = ()
    # Matched verbatim (non-Latin tokens)
    raw_tokens: tuple[str, ...] = ()
    # Each group matches when all of its tokens occur in the lower-cased text
    token_groups: tuple[tuple[str, ...], ...] = ()

    def matches(self, detail: str, lower: str) -> bool:
        return (
            any(t in lower for t in self.tokens)
            or any(t in detail for t in self.raw_tokens)
            or any(all(t in lower for t in group) for group in self.token_groups)
        )


ERROR_RULES: tuple[ErrorRule, ...] = (
    ErrorRule(
        error_type="unauthorized",
        message="API 未授权或 Key 无效",
        suggestion="检查 API Key、权限和接口地址是否匹配",
        tokens=("401", "403", "unauthorized", "invalid api key", "authentication"),
    ),
    ErrorRule(
        error_type="insufficient_quota",
        message="余额或配额不足",
        suggestion="检查账户余额或更换可用账号",
        tokens=("insufficient_quota", "quota", "balance", "billing", "payment"),
        raw_tokens=("余额", "欠费", "配额"),
    ),
    ErrorRule(
        error_type="rate_limit",
        message="请求过于频繁或触发限流",
        suggestion="降低频率或稍后重试",
        tokens=("429", "rate limit", "too many requests"),
    ),
    ErrorRule(
        error_type="timeout",
        message="请求超时",
        suggestion="检查网络或稍后重试",
        tokens=("timeout", "timed out"),
    ),
    ErrorRule(
        error_type="network",
        message="网络连接失败",
        suggestion="检查网络、代理或接口地址",
        tokens=(
            "dns",
            "failed to lookup address",
            "connection refused",
            "connection reset",
            "connect",
            "network",
        ),
        raw_tokens=("网络", "无法连接", "连接失败"),
    ),
    ErrorRule(
        error_type="invalid_request",
        message="请求参数或模型名称无效",
        suggestion="确认模型名称与接口是否兼容 OpenAI 格式",
        tokens=("400", "404", "invalid"),
        token_groups=(("model", "not found"),),
    ),
    ErrorRule(
        error_type="server_error",
        message="服务端错误",
        suggestion="稍后重试或切换节点",
        tokens=("500", "502", "503", "504"),
    ),
)

UNKNOWN_RULE = ErrorRule(
    error_type="unknown",
    message="模型调用失败",
    suggestion="查看错误详情或日志",
)


def classify_model_error(detail: str) -> ErrorRule:
    """Return the first rule matching ``detail``, or ``UNKNOWN_RULE``."""
    lower = detail.lower()
    for rule in ERROR_RULES:
        if rule.matches(detail, lower):
            return rule
    return UNKNOWN_RULE


def build_model_error_alert(
    detail: str, source: str, now: datetime | None = None
) -> ModelErrorAlert:
    rule = classify_model_error(detail)
    return ModelErrorAlert(
        timestamp=(now or datetime.now().astimezone()).isoformat(),
        error_type=rule.error_type,
        message=rule.message,
        suggestion=rule.suggestion,
        detail=detail,
        source=source,
    )
