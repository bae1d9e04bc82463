"""Prompt templates sent to the analyzer."""

from __future__ import annotations

from screen_assistant.analysis.parser import AnalysisResult

ANALYSIS_PROMPT_TEMPLATE = """你是屏幕截图分析器。请严格只输出一个可解析的 JSON 对象，不要输出任何解释、Markdown 或代码块。

必须包含以下字段：
{{
  "summary": "30-50字的操作概述，描述用户正在做什么、使用什么工具、处理什么内容",
  "detail": "对画面的详细描述：包含主要窗口/界面区域、可见文本、按钮、输入输出、错误提示等具体细节",
  "app": "主要应用或窗口名称，无法判断写 Unknown",
  "has_issue": true 或 false（布尔值）,
  "issue_type": "问题类型（仅在 has_issue 为 true 时填写，否则空字符串）",
  "issue_summary": "问题摘要（仅在 has_issue 为 true 时填写，否则空字符串）",
  "suggestion": "解决建议（仅在 has_issue 为 true 时填写，否则空字符串）：根据 detail 中的错误信息，指出最可能的原因，并给出具体可操作的解决步骤",
  "confidence": 对整体分析结果准确性的置信度，0.0-1.0 之间的数值
}}

示例输出：
{{
  "summary": "在 VS Code 中编辑 screen-assistant 项目的 Python 代码，正在修改 capture 模块的截图分析提示词",
  "detail": "VS Code 编辑器窗口最大化显示。左侧资源管理器展开 screen_assistant/capture 目录，当前打开文件为 prompts.py。编辑区域显示第 10-60 行的 Python 代码。底部状态栏显示 UTF-8 编码、LF 换行符、Python 语言模式。",
  "app": "Visual Studio Code",
  "has_issue": false,
  "issue_type": "",
  "issue_summary": "",
  "suggestion": "",
  "confidence": 0.95
}}

判定规则：
- 只有当截图中出现明确错误/失败/阻塞提示时，has_issue 才为 true
- issue_type 用 2-6 个词概括问题（如 编译错误/网络错误/权限不足/界面卡死）
- issue_summary 必须具体指出错误内容或提示文本，不要泛泛而谈
- detail 只描述可见信息，不要猜测未显示的内容

近期记录（仅供参考，可能不完整）：
{recent_context}
"""

SUGGESTION_QUESTION = "基于以上信息给出 1-3 条可执行的解决建议，尽量具体，不要复述背景。"
SUGGESTION_FAILED_TEXT = "建议生成失败，请查看详情或稍后重试。"
UNCLASSIFIED_ISSUE_TYPE = "未分类"


def build_analysis_prompt(recent_context: str) -> str:
    return ANALYSIS_PROMPT_TEMPLATE.format(recent_context=recent_context)


def build_suggestion_context(result: AnalysisResult, recent_context: str) -> str:
    """System context for the follow-up call that asks for a fix."""
    return (
        "当前截图分析:\n"
        f"- summary: {result.summary}\n"
        f"- detail: {result.detail}\n"
        f"- issue_type: {result.issue_type or UNCLASSIFIED_ISSUE_TYPE}\n"
        f"- issue_summary: {result.issue_text}\n"
        f"- confidence: {result.confidence:.2f}\n\n"
        f"近期记录:\n{recent_context}"
    )
