"""
Predefined storefront color themes.

Applying a theme copies its five colors into the store's SiteSettings.
"""

THEMES = {
    'default': {
        'name': 'Default Blue',
        'description': 'Classic blue theme',
        'primary': '#2563eb',
        'secondary': '#64748b',
        'accent': '#0ea5e9',
        'background': '#ffffff',
        'text': '#1e293b',
    },
    'ocean': {
        'name': 'Ocean Blue',
        'description': 'Deep ocean blues and teals',
        'primary': '#0f766e',
        'secondary': '#0891b2',
        'accent': '#06b6d4',
        'background': '#f0fdfa',
        'text': '#134e4a',
    },
    'forest': {
        'name': 'Forest Green',
        'description': 'Natural greens and earth tones',
        'primary': '#15803d',
        'secondary': '#65a30d',
        'accent': '#22c55e',
        'background': '#f0fdf4',
        'text': '#14532d',
    },
    'sunset': {
        'name': 'Sunset Orange',
        'description': 'Warm oranges and yellows',
        'primary': '#ea580c',
        'secondary': '#f59e0b',
        'accent': '#facc15',
        'background': '#fffbeb',
        'text': '#92400e',
    },
    'midnight': {
        'name': 'Midnight Dark',
        'description': 'Dark theme with purple accents',
        'primary': '#7c3aed',
        'secondary': '#6366f1',
        'accent': '#a855f7',
        'background': '#0f0f23',
        'text': '#e2e8f0',
    },
    'coral': {
        'name': 'Coral Pink',
        'description': 'Soft pinks and corals',
        'primary': '#ec4899',
        'secondary': '#f97316',
        'accent': '#fb7185',
        'background': '#fef7f7',
        'text': '#881337',
    },
    'violet': {
        'name': 'Royal Violet',
        'description': 'Rich purples and violets',
        'primary': '#9333ea',
        'secondary': '#8b5cf6',
        'accent': '#c084fc',
        'background': '#faf5ff',
        'text': '#581c87',
    },
    'emerald': {
        'name': 'Emerald Luxury',
        'description': 'Rich emeralds and gold accents',
        'primary': '#059669',
        'secondary': '#0d9488',
        'accent': '#10b981',
        'background': '#ecfdf5',
        'text': '#064e3b',
    },
}

# Theme color key -> SiteSettings field
THEME_FIELD_MAP = {
    'primary': 'primary_color',
    'secondary': 'secondary_color',
    'accent': 'accent_color',
    'background': 'background_color',
    'text': 'text_color',
}


def list_themes():
    """Return presets as a list of dicts with their ``key``."""
    return [{'key': key, **theme} for key, theme in THEMES.items()]


def get_theme(key):
    return THEMES.get(key)
