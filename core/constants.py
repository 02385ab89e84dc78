# Fetch Identity
UA_PRIMARY = (
    "CourseScraperBot/1.0 (+https://plantview.io/coursescraper; contact: andre@plantview.io)"
)
UA_FALLBACK = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36"
)
UA_SESSION = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)

DEFAULT_REFERRER = "https://www.google.com"
DEFAULT_FETCH_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "pt-BR,pt;q=0.9,en-US;q=0.8,en;q=0.7",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
}

# Fetch Defaults
DEFAULT_FETCH_TIMEOUT = 25.0  # Seconds
DEFAULT_FETCH_RETRIES = 2
DEFAULT_FETCH_BACKOFF = 0.6  # Seconds between retries
FETCH_TIMEOUT_STEP = 1.0  # Extra seconds per retry

# Collection Settings
DEFAULT_PLATFORMS = ("evg", "fgv", "sebrae")
DEFAULT_MAX_PAGES_PER_RUN = 100
MIN_PAGE_CAP = 5
MAX_PAGE_CAP = 200
DEFAULT_ITEM_CAP = 10_000

# Per-source tuning
EVG_BASE_URL = "https://www.escolavirtual.gov.br"
EVG_PAGE_PATH = "/catalogo?page="
EVG_PAGE_DELAY = 0.18
EVG_BACKOFF = 0.6
ONLINE_STATUS_TEXT = "Online (EAD)"

FGV_BASE_URL = "https://educacao-executiva.fgv.br"
FGV_PAGE_PATH = "/cursos/gratuitos?page="
FGV_PAGE_DELAY = 0.22
FGV_BACKOFF = 0.4
FGV_MIN_TITLE_LENGTH = 5
FGV_MIN_DETAIL_SEGMENTS = 5

SEBRAE_BASE_URL = "https://www.sebrae.com.br"
SEBRAE_LISTING_PATH = "/sites/PortalSebrae/cursosonline"
SEBRAE_COMPONENT_ID = "3263d864e639a610VgnVCM1000004c00210aRCRD"
SEBRAE_STEP = 12
SEBRAE_INITIAL_QTD = 24
SEBRAE_ORDER = "2"
SEBRAE_PAGE_DELAY = 0.32
SEBRAE_BACKOFF = 0.8
SEBRAE_NULL_DOC_STREAK = 2
SEBRAE_NO_NEW_CARDS_STREAK = 2
SEBRAE_ITEMS_PER_PAGE_BUDGET = 60
SEBRAE_MAX_PAGE_BUDGET = 50

# Notification Settings
TELEGRAM_API_URL = "https://api.telegram.org/bot{token}/sendMessage"
TELEGRAM_SPLIT_WINDOW = 600  # Look back this many chars for a newline split
DISCORD_TITLE_LIMIT = 240
DISCORD_EMPTY_FIELD = "—"
NO_AREA_TEXT = "Sem área"
DATE_FORMAT = "%d/%m/%Y"

# Store Limits
PENDING_LIMIT_MIN = 1
PENDING_LIMIT_MAX = 500
LATEST_SIZE_MIN = 1
LATEST_SIZE_MAX = 100

# Area Classification (ordered, first match wins)
DEFAULT_AREA_RULES = [
    ("Dados & IA", ["dados", "ia"]),
    ("Finanças & Contabilidade", ["finan"]),
    ("Gestão & Negócios", ["gest", "empreend"]),
    ("Marketing & Vendas", ["marketing", "vendas"]),
    ("Saúde & Bem-estar", ["saúde"]),
    ("Tecnologia", ["tecnolog"]),
]

FGV_AREA_RULES = [
    ("Dados & IA", ["ciência de dados", "inteligência artificial", "dados", "ia"]),
    ("Finanças & Contabilidade", ["finan"]),
    ("Gestão & Negócios", ["gest", "administra", "executiva"]),
    ("Marketing & Vendas", ["marketing", "vendas"]),
    ("Direito", ["direito"]),
    ("Tecnologia", ["tecnolog"]),
]

# Default Configuration Values
DEFAULT_COLLECT_INTERVAL = 12 * 60 * 60
DEFAULT_PENDING_INTERVAL = 60
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_FILE = "bot.log"
DEFAULT_LOG_FORMAT = "text"  # text or json
DEFAULT_LOG_MAX_BYTES = 10 * 1024 * 1024  # 10MB
DEFAULT_LOG_BACKUP_COUNT = 5
DEFAULT_LOG_TIMEZONE = "America/Sao_Paulo"
