import re
from enum import IntEnum
from typing import Any, Optional

from errors import ProtocolExecutionError


class AmmErrorType(IntEnum):
    ALREADY_IN_USE = 0
    INVALID_PROGRAM_ADDRESS = 1
    EXPECTED_MINT = 2
    EXPECTED_ACCOUNT = 3
    INVALID_COIN_VAULT = 4
    INVALID_PC_VAULT = 5
    INVALID_TOKEN_LP = 6
    INVALID_DEST_TOKEN_COIN = 7
    INVALID_DEST_TOKEN_PC = 8
    INVALID_POOL_MINT = 9
    INVALID_OPEN_ORDERS = 10
    INVALID_MARKET = 11
    INVALID_MARKET_PROGRAM = 12
    INVALID_TARGET_ORDERS = 13
    ACCOUNT_NEED_WRITEABLE = 14
    ACCOUNT_NEED_READ_ONLY = 15
    INVALID_COIN_MINT = 16
    INVALID_PC_MINT = 17
    INVALID_OWNER = 18
    INVALID_SUPPLY = 19
    INVALID_DELEGATE = 20
    INVALID_SIGN_ACCOUNT = 21
    INVALID_STATUS = 22
    INVALID_INSTRUCTION = 23
    WRONG_ACCOUNTS_NUMBER = 24
    INVALID_TARGET_ACCOUNT_OWNER = 25
    INVALID_TARGET_OWNER = 26
    INVALID_AMM_ACCOUNT_OWNER = 27
    INVALID_PARAMS_SET = 28
    INVALID_INPUT = 29
    EXCEEDED_SLIPPAGE = 30
    CALCULATION_EX_RATE_FAILURE = 31
    CHECKED_SUB_OVERFLOW = 32
    CHECKED_ADD_OVERFLOW = 33
    CHECKED_MUL_OVERFLOW = 34
    CHECKED_DIV_OVERFLOW = 35
    CHECKED_EMPTY_FUNDS = 36
    CALC_PNL_ERROR = 37
    INVALID_SPL_TOKEN_PROGRAM = 38
    TAKE_PNL_ERROR = 39
    INSUFFICIENT_FUNDS = 40
    CONVERSION_FAILURE = 41
    INVALID_USER_TOKEN = 42
    INVALID_SRM_MINT = 43
    INVALID_SRM_TOKEN = 44
    TOO_MANY_OPEN_ORDERS = 45
    ORDER_AT_SLOT_IS_PLACED = 46
    INVALID_SYS_PROGRAM_ADDRESS = 47
    INVALID_FEE = 48
    REPEAT_CREATE_AMM = 49
    NOT_ALLOW_ZERO_LP = 50
    INVALID_CLOSE_AUTHORITY = 51
    INVALID_FREEZE_AUTHORITY = 52
    INVALID_REFER_PC_MINT = 53
    INVALID_CONFIG_ACCOUNT = 54
    REPEAT_CREATE_CONFIG_ACCOUNT = 55
    MARKET_LOT_SIZE_IS_TOO_LARGE = 56
    INIT_LP_AMOUNT_TOO_LESS = 57
    UNKNOWN_AMM_ERROR = 58


#program side names, indexed by error code
AMM_ERROR_MESSAGES = [
    "AlreadyInUse",
    "InvalidProgramAddress",
    "ExpectedMint",
    "ExpectedAccount",
    "InvalidCoinVault",
    "InvalidPCVault",
    "InvalidTokenLP",
    "InvalidDestTokenCoin",
    "InvalidDestTokenPC",
    "InvalidPoolMint",
    "InvalidOpenOrders",
    "InvalidMarket",
    "InvalidMarketProgram",
    "InvalidTargetOrders",
    "AccountNeedWriteable",
    "AccountNeedReadOnly",
    "InvalidCoinMint",
    "InvalidPCMint",
    "InvalidOwner",
    "InvalidSupply",
    "InvalidDelegate",
    "InvalidSignAccount",
    "InvalidStatus",
    "InvalidInstruction",
    "WrongAccountsNumber",
    "InvalidTargetAccountOwner",
    "InvalidTargetOwner",
    "InvalidAmmAccountOwner",
    "InvalidParamsSet",
    "InvalidInput",
    "ExceededSlippage",
    "CalculationExRateFailure",
    "CheckedSubOverflow",
    "CheckedAddOverflow",
    "CheckedMulOverflow",
    "CheckedDivOverflow",
    "CheckedEmptyFunds",
    "CalcPnlError",
    "InvalidSplTokenProgram",
    "TakePnlError",
    "InsufficientFunds",
    "ConversionFailure",
    "InvalidUserToken",
    "InvalidSrmMint",
    "InvalidSrmToken",
    "TooManyOpenOrders",
    "OrderAtSlotIsPlaced",
    "InvalidSysProgramAddress",
    "InvalidFee",
    "RepeatCreateAmm",
    "NotAllowZeroLP",
    "InvalidCloseAuthority",
    "InvalidFreezeAuthority",
    "InvalidReferPCMint",
    "InvalidConfigAccount",
    "RepeatCreateConfigAccount",
    "MarketLotSizeIsTooLarge",
    "InitLpAmountTooLess",
    "UnknownAmmError",
]

_COMMON_ERROR_RE = re.compile(r"Program log: Error: ([\w \t]+)")
_CUSTOM_HEX_RE = re.compile(r"custom\sprogram\serror:\s(0x[0-9a-fA-F]+)")
_CUSTOM_JSON_RE = re.compile(r"\{\s*\"Custom\"\s*:\s*(\d+)\s*\}")
_CUSTOM_REPR_RE = re.compile(r"Custom\((\d+)\)")


class AmmError(ProtocolExecutionError):

    def __init__(self, code: int, raw: Optional[Any] = None):
        if 0 <= code < len(AmmErrorType):
            error_type = AmmErrorType(code)
        else:
            error_type = AmmErrorType.UNKNOWN_AMM_ERROR
        super().__init__(AMM_ERROR_MESSAGES[error_type], raw)
        self.code = code
        self.error_type = error_type


def _custom_error_code(message: str) -> Optional[int]:
    match = _CUSTOM_HEX_RE.search(message)
    if match:
        return int(match.group(1), 16)
    for pattern in (_CUSTOM_JSON_RE, _CUSTOM_REPR_RE):
        match = pattern.search(message)
        if match:
            return int(match.group(1))
    return None


def parse_error_from_transaction_error(error: Any) -> Optional[ProtocolExecutionError]:
    """
    Turns a raw transaction error into a typed one.

    Returns None when the error carries neither a program log error nor a custom
    program error code, the caller then keeps the raw error.
    """
    message = str(error)

    common_error = _COMMON_ERROR_RE.search(message)
    if common_error:
        return ProtocolExecutionError(common_error.group(1).strip(), error)

    code = _custom_error_code(message)
    if code is not None:
        return AmmError(code, error)

    return None
