from solders.pubkey import Pubkey

RAYDIUM_AMM_V4 = Pubkey.from_string("675kPX9MHTjS2zt1qfr1NYHuzeLXfQM9H24wFSUt1Mp8")
OPENBOOK_PROGRAM = Pubkey.from_string("srmqPvymJeFKQ4zGQed1GFppgkRHL9kaELCbyksJtPX")
TOKEN_PROGRAM_ID = Pubkey.from_string("TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA")
RAY_AUTHORITY_V4 = Pubkey.from_string("5Q544fKrFoe6tsEbD7S8EmxGTJYAKtTVhAW5Q5pge4j1")

#fee account every initialize2 transaction pays into
CREATE_FEE_ACCOUNT = Pubkey.from_string("7YttLkHDoNj9wyDur5pM1ejNaAvT9X4eqaYcHQqtj2G5")

WSOL = Pubkey.from_string("So11111111111111111111111111111111111111112")

AMM_AUTHORITY_SEED = b"amm authority"

RAY_LOG_PREFIX = "Program log: ray_log: "
INITIALIZE2_LOG_MARKER = "Program log: initialize2: InitializeInstruction2"

SWAP_BASE_IN_INSTRUCTION = 9
INITIALIZE2_ACCOUNTS_LEN = 21

