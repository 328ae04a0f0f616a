import pytest

from .constants import TPUBS
from .utils import derive_distinct_tpubs


@pytest.fixture()
def tpubs():
    return list(TPUBS)


@pytest.fixture(scope="session")
def many_tpubs():
    # 16 distinct testnet keys, one more than a multisig can hold
    return derive_distinct_tpubs(TPUBS[0], 16)
