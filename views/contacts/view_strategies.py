import re

# Entry points and menu labels on the contacts screen that are never contact names
CONTACT_EXCLUSION_LABELS = frozenset(
    {
        "新的朋友",
        "仅聊天的朋友",
        "群聊",
        "标签",
        "公众号",
        "搜一搜",
        "附近的",
        "通讯录",
        "搜索",
        "添加",
        "设置",
        "更多",
        "取消",
        "确定",
        "微信",
    }
)

# Name length limits (inclusive, measured after trimming)
MIN_NAME_LENGTH = 2
MAX_NAME_LENGTH = 20

# Phone numbers, unread badges and other digit-only tokens
DIGITS_ONLY_PATTERN = re.compile(r"^\d+$")

# Message timestamps shown next to a chat row
CLOCK_TIME_PATTERN = re.compile(r"^\d{1,2}:\d{2}$")
RELATIVE_DAY_TIME_PATTERN = re.compile(r"^(昨天|前天|Yesterday).*\d{1,2}:\d{2}$", re.IGNORECASE)
ABSOLUTE_DATE_PATTERNS = (
    re.compile(r"^\d{4}年\d{1,2}月\d{1,2}日.*"),
    re.compile(r"^\d{4}[-/]\d{1,2}[-/]\d{1,2}\b.*"),
)

# Regions starting below this fraction of the frame belong to the bottom tab bar
BOTTOM_NAV_TOP_RATIO = 0.85

# Regions taller than this fraction of the frame are titles or headers
MAX_REGION_HEIGHT_RATIO = 0.10

# Code points above this are treated as pictographs (emoji-only nicknames)
PICTOGRAPHIC_MIN_CODEPOINT = 0x1F000
