SOFT_NAME = "RAY_SNIPER"

#===========================ENDPOINTS===========================

RPC_URL = "https://api.mainnet-beta.solana.com"
WS_RPC_URL = "wss://api.mainnet-beta.solana.com"
#needs transactionSubscribe support (helius atlas or similar)
STREAM_WS_URL = ""

#empty string disables the bundle path, swaps then only go through direct broadcast
JITO_BLOCK_ENGINE_URL = "tokyo.mainnet.block-engine.jito.wtf"

#0 means reconnect forever, without delay
RECONNECT_ATTEMPTS = 0
RECONNECT_DELAY = 0

#===========================KEYS===========================

#solana cli json keypair files, used when no encrypted keys are cached
KEYPAIR_PATH = "~/.config/solana/id.json"
JITO_AUTH_KEYPAIR_PATH = "~/.config/solana/jito.json"

#encrypted keys storage
KEYS_CACHE_DIR = "cache_data"

#===========================EXECUTION===========================

COMPUTE_UNIT_LIMIT = 300_000
SOLANA_PRIORITY_FEE = 100_000 #micro lamports per CU, direct mode only
JITO_TIP = 100_000 #lamports
SLIPPAGE_PERCENT = 10

#auto mode picks the bundle path when the next jito leader is closer than this
AUTO_MODE_SLOT_GAP = 5

BLOCKHASH_UPDATE_INTERVAL = 10
SEND_BUNDLE_TIMEOUT = 5

IO_RETRIES = 3
IO_RETRY_INTERVAL = 1
BUNDLE_RESULTS_RESUBSCRIBE_INTERVAL = 5

#===========================SCREENER===========================

PRICE_UPDATE_INTERVAL = 1
MAX_PRICE_SAMPLES = 10_000

#===========================HTTP===========================

ERROR_429_RETRIES = 3
ERROR_429_DELAY = 60

#===========================LOGS===========================

LOG_LEVEL = "DEBUG"
DEFAULT_LOGS_FILE = "info.log"
DEBUG_LOGS_FILE = "debug.log"
LOGS_SIZE = "10 MB"
