"""
Data tables for the widget locator.

Everything here is plain data; a new launcher pattern is added by editing a
list, not the locator code.
"""

# Attribute substrings that mark an iframe as a chat frame
FRAME_SUBSTRINGS = [
    "chat", "live chat", "widget", "messaging", "kommunicate",
    "chat-popup-widget", "zendesk", "zopim", "intercom", "drift", "hubspot",
    "crisp", "freshchat", "livechat", "tawk", "tidio",
]

# id / class / data-* / tag substrings searched inside open shadow roots
SHADOW_SUBSTRINGS = [
    "chat", "message", "support", "kommunicate", "chat-popup-widget",
]

# Generic launcher selectors, most specific first
GENERIC_CHAT_SELECTORS = [
    # Kommunicate style launchers
    "#km-chat-widget-btn",
    ".km-chat-widget-btn",
    '[data-target="kommunicate-widget"]',
    '[data-widget="kommunicate"]',
    ".chat-popup-widget-actionable",

    # Launchers labelled as chat
    'button[aria-label*="chat" i]',
    'a[aria-label*="chat" i]',
    '[role="button"][aria-label*="chat" i]',
    'button[aria-label*="support" i]',
    'button[aria-label*="message" i]',
    '[title*="chat" i]',
    '[id*="chat-widget" i]',
    '[id*="launcher" i]',
    '[class*="launcher" i]',

    # Elements named after chat
    'button[id*="chat" i]',
    'button[class*="chat" i]',
    'a[id*="chat" i]',
    'a[class*="chat" i]',
    'div[id*="chat" i]',
    'div[class*="chat" i]',
    'span[id*="chat" i]',
    'span[class*="chat" i]',
    'img[alt*="chat" i]',
    'img[src*="chat" i]',
    'svg[id*="chat" i]',
    'svg[class*="chat" i]',

    # Messaging and support entry points
    '[id*="messenger" i]',
    '[class*="messenger" i]',
    '[id*="whatsapp" i]',
    '[class*="whatsapp" i]',
    '[id*="support" i]',
    '[class*="support" i]',
    '[id*="message" i]',
    '[class*="message" i]',

    # Well known widget names
    '[id*="intercom" i]',
    '[class*="intercom" i]',
    '[id*="drift" i]',
    '[class*="drift" i]',
    '[id*="zendesk" i]',
    '[class*="zendesk" i]',
    '[id*="crisp" i]',
    '[class*="crisp" i]',
    '[id*="helpscout" i]',
    '[class*="helpscout" i]',
    '[id*="hubspot" i]',
    '[class*="hubspot" i]',
    '[id*="freshchat" i]',
    '[class*="freshchat" i]',
    '[id*="livechat" i]',
    '[class*="livechat" i]',
    '[id*="tawk" i]',
    '[class*="tawk" i]',
    '[id*="olark" i]',
    '[class*="olark" i]',
    '[id*="purechat" i]',
    '[class*="purechat" i]',
    '[id*="tidio" i]',
    '[class*="tidio" i]',
    '[id*="liveagent" i]',
    '[class*="liveagent" i]',
    '[id*="chatra" i]',
    '[class*="chatra" i]',
    '[id*="userlike" i]',
    '[class*="userlike" i]',

    # Floating icon buttons
    ".fab",
    'svg[class*="icon" i]',
    'div[class*="icon" i]',
]

# Fixed-position heuristic bounds, in CSS pixels
FIXED_MAX_SIZE_PX = 150
FIXED_MAX_EDGE_GAP_PX = 150
