from construct import Array, Bytes, BytesInteger, Int8ul, Int64ul, Padding, Struct

PUBKEY = Bytes(32)
U128 = BytesInteger(16, signed=False, swapped=True)

LIQUIDITY_STATE_LAYOUT_V4 = Struct(
    "status" / Int64ul,
    "nonce" / Int64ul,
    "maxOrder" / Int64ul,
    "depth" / Int64ul,
    "coinDecimals" / Int64ul,
    "pcDecimals" / Int64ul,
    "state" / Int64ul,
    "resetFlag" / Int64ul,
    "minSize" / Int64ul,
    "volMaxCutRatio" / Int64ul,
    "amountWaveRatio" / Int64ul,
    "coinLotSize" / Int64ul,
    "pcLotSize" / Int64ul,
    "minPriceMultiplier" / Int64ul,
    "maxPriceMultiplier" / Int64ul,
    "systemDecimalsValue" / Int64ul,
    "minSeparateNumerator" / Int64ul,
    "minSeparateDenominator" / Int64ul,
    "tradeFeeNumerator" / Int64ul,
    "tradeFeeDenominator" / Int64ul,
    "pnlNumerator" / Int64ul,
    "pnlDenominator" / Int64ul,
    "swapFeeNumerator" / Int64ul,
    "swapFeeDenominator" / Int64ul,
    "needTakePnlCoin" / Int64ul,
    "needTakePnlPc" / Int64ul,
    "totalPnlPc" / Int64ul,
    "totalPnlCoin" / Int64ul,
    "poolOpenTime" / Int64ul,
    "punishPcAmount" / Int64ul,
    "punishCoinAmount" / Int64ul,
    "orderbookToInitTime" / Int64ul,
    "swapCoinInAmount" / U128,
    "swapPcOutAmount" / U128,
    "swapCoin2PcFee" / Int64ul,
    "swapPcInAmount" / U128,
    "swapCoinOutAmount" / U128,
    "swapPc2CoinFee" / Int64ul,
    "poolCoinTokenAccount" / PUBKEY,
    "poolPcTokenAccount" / PUBKEY,
    "coinMintAddress" / PUBKEY,
    "pcMintAddress" / PUBKEY,
    "lpMintAddress" / PUBKEY,
    "ammOpenOrders" / PUBKEY,
    "serumMarket" / PUBKEY,
    "serumProgramId" / PUBKEY,
    "ammTargetOrders" / PUBKEY,
    "poolWithdrawQueue" / PUBKEY,
    "poolTempLpTokenAccount" / PUBKEY,
    "ammOwner" / PUBKEY,
    "lpReserve" / Int64ul,
    "padding" / Array(3, Int64ul),
)

MARKET_STATE_LAYOUT_V3 = Struct(
    Padding(5),
    "account_flags" / Int64ul,
    "own_address" / PUBKEY,
    "vault_signer_nonce" / Int64ul,
    "base_mint" / PUBKEY,
    "quote_mint" / PUBKEY,
    "base_vault" / PUBKEY,
    "base_deposits_total" / Int64ul,
    "base_fees_accrued" / Int64ul,
    "quote_vault" / PUBKEY,
    "quote_deposits_total" / Int64ul,
    "quote_fees_accrued" / Int64ul,
    "quote_dust_threshold" / Int64ul,
    "request_queue" / PUBKEY,
    "event_queue" / PUBKEY,
    "bids" / PUBKEY,
    "asks" / PUBKEY,
    "base_lot_size" / Int64ul,
    "quote_lot_size" / Int64ul,
    "fee_rate_bps" / Int64ul,
    "referrer_rebates_accrued" / Int64ul,
    Padding(7),
)

#ray_log payloads, each follows a 1 byte log type
INIT_RAY_LOG_LAYOUT = Struct(
    "open_time" / Int64ul,
    "quote_decimals" / Int8ul,
    "base_decimals" / Int8ul,
    "quote_lot_size" / Int64ul,
    "base_lot_size" / Int64ul,
    "quote_amount" / Int64ul,
    "base_amount" / Int64ul,
    "market_account" / PUBKEY,
)

SWAP_BASE_IN_RAY_LOG_LAYOUT = Struct(
    "amount_in" / Int64ul,
    "min_amount_out" / Int64ul,
    "direction" / Int64ul,
    "user_amount" / Int64ul,
    "base_reserve" / Int64ul,
    "quote_reserve" / Int64ul,
    "amount_out" / Int64ul,
)

SWAP_BASE_OUT_RAY_LOG_LAYOUT = Struct(
    "max_amount_in" / Int64ul,
    "amount_out" / Int64ul,
    "direction" / Int64ul,
    "user_amount" / Int64ul,
    "base_reserve" / Int64ul,
    "quote_reserve" / Int64ul,
    "amount_in" / Int64ul,
)

SWAP_BASE_IN_ARGS_LAYOUT = Struct(
    "instruction" / Int8ul,
    "amount_in" / Int64ul,
    "min_amount_out" / Int64ul,
)
