cloudflare_cache_headers = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Headers': '*',
    'Cache-Control': 'no-cache, no-store, must-revalidate',
    'Pragma': 'no-cache',
    'Expires': '0',
    'Surrogate-Control': 'no-store'
}

USER_AGENT = (
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
    '(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36'
)


def browser_headers(base_url: str) -> dict:
    """Headers that make upstream calls look like the KissKH web player."""
    return {
        'User-Agent': USER_AGENT,
        'Accept': '*/*',
        'Accept-Language': 'en-US,en;q=0.9',
        'Referer': base_url.rstrip('/') + '/',
        'Origin': base_url.rstrip('/'),
    }


# Stremio catalog id suffix -> upstream search type
SEARCH_TYPES = {
    'asian-drama': {'code': 1, 'name': 'Asian Drama', 'stremio_type': 'series'},
    'asian-movies': {'code': 2, 'name': 'Asian Movies', 'stremio_type': 'movie'},
    'anime': {'code': 3, 'name': 'Anime', 'stremio_type': 'series'},
    'hollywood': {'code': 4, 'name': 'Hollywood', 'stremio_type': 'movie'},
}

DEFAULT_CATALOG_TERMS = ['2024', '2025', 'love', 'drama']
CATALOG_PAGE_SIZE = 20
SEARCH_RESULTS_PER_TYPE = 20

# Token function signature, fixed by the upstream bundle
TOKEN_FUNCTION = '_0x54b991'
TOKEN_APP_VERSION = '2.8.10'
TOKEN_PLATFORM_VERSION = 4830201
TOKEN_APP_NAME = 'kisskh'
TOKEN_APP_NAME_REPEAT = 6
STREAM_UID = '62f176f3bb1b5b8e70e39932ad34a0c7'
SUBTITLE_UID = 'VgV52sWhwvBSf8BsM3BRY9weWiiCbtGp'

# Episodes that are not out yet point at a countdown widget
COUNTDOWN_DOMAIN = 'tickcounter.com'

# Upstream language label -> ISO 639-1
LANGUAGE_CODES = {
    'English': 'en',
    'French': 'fr',
    'Indonesia': 'id',
    'Indonesian': 'id',
    'Malay': 'ms',
    'Arabic': 'ar',
    'Khmer': 'km',
    'Spanish': 'es',
    'Portuguese': 'pt',
    'German': 'de',
    'Italian': 'it',
    'Korean': 'ko',
    'Japanese': 'ja',
    'Chinese': 'zh',
    'Thai': 'th',
    'Vietnamese': 'vi',
    'Hindi': 'hi',
    'Russian': 'ru',
    'Turkish': 'tr',
    'Polish': 'pl',
    'Dutch': 'nl',
    'Greek': 'el',
    'Hebrew': 'he',
    'Romanian': 'ro',
    'Czech': 'cs',
    'Hungarian': 'hu',
    'Swedish': 'sv',
    'Danish': 'da',
    'Finnish': 'fi',
    'Norwegian': 'no',
}

# Native spellings seen in upstream labels, on top of LANGUAGE_CODES
NATIVE_LANGUAGE_NAMES = {
    'fr': ['français', 'francais'],
    'es': ['español', 'espanol'],
    'pt': ['português', 'portugues'],
    'de': ['deutsch'],
    'it': ['italiano'],
    'id': ['bahasa indonesia'],
    'ms': ['bahasa melayu'],
    'vi': ['tiếng việt'],
}

LANGUAGE_FLAGS = {
    'fr': '🇫🇷',
    'en': '🇬🇧',
    'es': '🇪🇸',
    'pt': '🇵🇹',
    'de': '🇩🇪',
    'it': '🇮🇹',
    'id': '🇮🇩',
    'ar': '🇸🇦',
}

cinemeta_bases = [
    'https://v3-cinemeta.strem.io',
    'https://cinemeta-live.strem.io',
]
