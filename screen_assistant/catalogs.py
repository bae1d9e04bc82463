"""Static lookup tables used by the parser, the alert filter and profile validation.

Extend these tables rather than adding literals to the control flow.
Order matters wherever a table is scanned: the first match wins and keyword
extraction reports matches in table order.
"""

from __future__ import annotations

# Known application names, checked as substrings of free analyzer text
KNOWN_APPS: tuple[str, ...] = (
    "Visual Studio Code",
    "VS Code",
    "Chrome",
    "Firefox",
    "Edge",
    "微信",
    "QQ",
    "钉钉",
    "飞书",
    "Slack",
    "Discord",
    "Word",
    "Excel",
    "PowerPoint",
    "Notion",
    "Obsidian",
    "Terminal",
    "PowerShell",
    "CMD",
)

UNKNOWN_APP = "Unknown"

# Matched case-insensitively
TROUBLE_TOKENS_LATIN: tuple[str, ...] = ("error",)

# Matched verbatim
TROUBLE_TOKENS: tuple[str, ...] = (
    "错误",
    "失败",
    "异常",
    "无法",
    "找不到",
    "未找到",
    "卡住",
    "无响应",
)

KEYWORD_EXTENSIONS: tuple[str, ...] = (
    ".rs",
    ".ts",
    ".js",
    ".py",
    ".vue",
    ".tsx",
    ".jsx",
    ".md",
    ".json",
)

KEYWORD_ACTIONS: tuple[str, ...] = (
    "编辑",
    "浏览",
    "搜索",
    "调试",
    "运行",
    "编写",
    "阅读",
    "聊天",
    "错误",
    "报错",
    "困难",
    "无法",
    "找不到",
    "未找到",
    "卡住",
    "无响应",
)

# Name of this tool's own window, lower-cased
SELF_APP_NAME = "screen assistant"

# Words that make an alert about our own window worth showing
SELF_ALERT_MARKERS: tuple[str, ...] = ("历史", "对话", "聊天", "提醒", "警告", "设置")

# Actions counted as errors during aggregation
ERROR_ACTIONS: frozenset[str] = frozenset({"issue", "error"})

RESERVED_DEVICE_NAMES: frozenset[str] = frozenset(
    {"CON", "PRN", "AUX", "NUL"}
    | {f"COM{i}" for i in range(1, 10)}
    | {f"LPT{i}" for i in range(1, 10)}
)

INVALID_NAME_CHARS: frozenset[str] = frozenset('\\/:*?"<>|')
