import logging
import re
from decimal import Decimal
from typing import Optional

import requests

logger = logging.getLogger(__name__)

API_URL = "https://mempool.space/api"  # любой Esplora-совместимый API, путь /address/<addr>

SATOSHI_PER_BTC = 100_000_000

# bech32 (bc1…, bc0 фиксированной длины) или base58 (1… / 3…), только целым словом
ADDRESS_RE = re.compile(
    r"\b("
    r"bc(?:0(?:[ac-hj-np-z02-9]{39}|[ac-hj-np-z02-9]{59})|1[ac-hj-np-z02-9]{8,87})"
    r"|[13][a-km-zA-HJ-NP-Z1-9]{25,35}"
    r")\b"
)


class BalanceError(Exception):
    """Баланс не удалось посчитать по ответу API."""


class MalformedResponse(BalanceError):
    pass


class NegativeBalance(BalanceError):
    pass


def extract_btc_address(text: str) -> Optional[str]:
    """Первый BTC-адрес в тексте или None.

    Контрольная сумма не проверяется, только форма адреса.
    """
    match = ADDRESS_RE.search(text)
    if match is None:
        return None
    return match.group(1)


def format_btc_balance(balance: int) -> str:
    """От 1 BTC — «₿ 1.23456789», меньше — сатоши группами по три: «丰 123 456»."""
    if balance < 0:
        raise ValueError(f"balance must be non-negative, got {balance}")
    if balance >= SATOSHI_PER_BTC:
        return f"₿ {Decimal(balance) / SATOSHI_PER_BTC:.8f}"
    return "丰 " + "{:,}".format(balance).replace(",", " ")


def _stats_balance(data, key: str) -> int:
    try:
        stats = data[key]
        funded = stats["funded_txo_sum"]
        spent = stats["spent_txo_sum"]
    except (KeyError, TypeError) as e:
        raise MalformedResponse(f"no {key} in response: {e!r}") from e

    for name, value in (("funded_txo_sum", funded), ("spent_txo_sum", spent)):
        if isinstance(value, bool) or not isinstance(value, int):
            raise MalformedResponse(f"{key}.{name} is not an integer: {value!r}")
    return funded - spent


def fetch_balance_btc(
    addr: str,
    api_url: str = API_URL,
    timeout: float = 10,
    include_mempool: bool = False,
) -> int:
    """Запрашиваем баланс адреса в сатоши.

    Ошибки сети и не-2xx ответы пробрасываются как requests.RequestException,
    кривой ответ — MalformedResponse, получено < потрачено — NegativeBalance.
    """
    url = f"{api_url.rstrip('/')}/address/{addr}"
    resp = requests.get(url, timeout=timeout)
    resp.raise_for_status()
    logger.debug("Response for %s: %s", addr, resp.text)

    try:
        data = resp.json()
    except ValueError as e:
        raise MalformedResponse(f"response is not JSON: {e}") from e

    # баланс = получено − потрачено (chain_stats, по желанию ещё mempool_stats)
    balance = _stats_balance(data, "chain_stats")
    if include_mempool:
        balance += _stats_balance(data, "mempool_stats")

    if balance < 0:
        raise NegativeBalance(f"negative balance {balance} for {addr}")
    return balance
