"""Map application names to reporting categories."""

from __future__ import annotations

DEVELOPMENT = "💻 Development"
BROWSING = "🌐 Browsing"
COMMUNICATION = "💬 Communication"
MEDIA = "🎵 Media"
FILES = "📁 Files"
EMAIL = "📧 Email"
OFFICE = "📄 Office"
OTHER = "📦 Other"

_RULES: tuple[tuple[str, tuple[str, ...]], ...] = (
    (
        DEVELOPMENT,
        (
            "code", "vim", "terminal", "alacritty", "kitty", "rust", "cargo",
            "editor", "gedit", "nano", "emacs", "atom", "sublime", "console",
            "iterm", "wezterm", "konsole",
        ),
    ),
    (BROWSING, ("browser", "chrome", "firefox", "brave", "edge", "chromium", "safari")),
    (
        COMMUNICATION,
        (
            "slack", "zoom", "teams", "discord", "telegram", "chat", "signal",
            "element", "video-call", "skype", "jitsi",
        ),
    ),
    (MEDIA, ("spotify", "vlc", "music", "media", "rhythmbox", "audacious", "clementine")),
    (FILES, ("nautilus", "files", "dolphin", "file-manager", "thunar", "nemo")),
    (EMAIL, ("thunderbird", "evolution", "geary", "email")),
    (OFFICE, ("libreoffice", "soffice")),
)

DEFAULT_CATEGORIES: tuple[str, ...] = tuple(label for label, _ in _RULES) + (OTHER,)


def categorize(app_name: str) -> str:
    """Return the category label for ``app_name``; unmatched apps are Other."""
    lowered = app_name.lower()
    for label, keywords in _RULES:
        if any(keyword in lowered for keyword in keywords):
            return label
    return OTHER



def is_custom_category(label: str) -> bool:
    return label not in DEFAULT_CATEGORIES
