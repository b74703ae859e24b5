"""
User-facing messages in English and German.

    t('setup.errors.invalidUrl')
    t('loading.openingServer', 'de', name='Demo Co')
"""

import logging
import re

logger = logging.getLogger('nuxbe.shell.messages')

DEFAULT_LANGUAGE = 'en'

TRANSLATIONS = {
    'en': {
        'setup': {
            'errors': {
                'emptyUrl': 'Please enter a server URL',
                'invalidUrl': 'Please enter a valid URL (e.g. https://erp.example.com)',
                'serverNotReachable': 'Server not reachable. Please check the URL and your connection.',
            },
        },
        'loading': {
            'connectingToServer': 'Connecting to server...',
            'openingServer': 'Opening {name}...',
            'connectionFailedTitle': 'Connection failed',
            'connectionFailedMessage': 'The server is taking too long to respond.',
            'retry': 'Retry',
            'backToServerSelection': 'Back to server selection',
        },
    },
    'de': {
        'setup': {
            'errors': {
                'emptyUrl': 'Bitte gib eine Server-URL ein',
                'invalidUrl': 'Bitte gib eine gültige URL ein (z.B. https://erp.example.com)',
                'serverNotReachable': 'Server nicht erreichbar. Bitte prüfe die URL und deine Verbindung.',
            },
        },
        'loading': {
            'connectingToServer': 'Verbindung zum Server wird hergestellt...',
            'openingServer': '{name} wird geöffnet...',
            'connectionFailedTitle': 'Verbindung fehlgeschlagen',
            'connectionFailedMessage': 'Der Server antwortet nicht rechtzeitig.',
            'retry': 'Erneut versuchen',
            'backToServerSelection': 'Zurück zur Serverauswahl',
        },
    },
}


def language_for(locale: str | None) -> str:
    """'de-AT' -> 'de'; unknown languages fall back to English."""
    if not locale:
        return DEFAULT_LANGUAGE
    code = locale.replace('_', '-').split('-')[0].lower()
    return code if code in TRANSLATIONS else DEFAULT_LANGUAGE


def t(key: str, lang: str | None = None, **replacements) -> str:
    """Translate a dotted key, filling {placeholder} values."""
    value = TRANSLATIONS[language_for(lang)]
    for part in key.split('.'):
        if not isinstance(value, dict) or part not in value:
            logger.warning(f"Translation key not found: {key}")
            return key
        value = value[part]

    if not isinstance(value, str):
        logger.warning(f"Translation value is not a string: {key}")
        return key

    for name, replacement in replacements.items():
        value = re.sub(r'\{' + re.escape(name) + r'\}', lambda _: str(replacement), value)
    return value
