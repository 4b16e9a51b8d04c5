import json
from types import SimpleNamespace

import pytest
from ordering.carrier import reset_carrier, set_carrier
from ordering.carrier.fake_adapter import FakeCarrier
from ordering.catalogue import reset_catalogue, set_catalogue
from ordering.catalogue.fake_adapter import FakeCatalogue
from ordering.cart.items import AddToCart
from ordering.gateway import reset_gateway, set_gateway
from ordering.gateway.fake_adapter import FakeGateway
from ordering.rewards import FakeRewards, reset_rewards, set_rewards
from ordering.shared.locks import settlement_locks
from ordering.wallet.ledger import CreditWallet
from protean import current_domain
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def ordering_bed():
    from ordering.domain import ordering

    bed = DomainFixture(ordering)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(ordering_bed):
    with ordering_bed.domain_context():
        yield

        # Clear all databases
        for _, provider in current_domain.providers.items():
            provider._data_reset()
        current_domain.event_store.store._data_reset()


@pytest.fixture(autouse=True)
def fakes():
    """Fresh fake collaborators for every test."""
    collaborators = SimpleNamespace(
        catalogue=FakeCatalogue(),
        gateway=FakeGateway(),
        carrier=FakeCarrier(),
        rewards=FakeRewards(),
    )
    set_catalogue(collaborators.catalogue)
    set_gateway(collaborators.gateway)
    set_carrier(collaborators.carrier)
    set_rewards(collaborators.rewards)
    settlement_locks.clear()

    yield collaborators

    reset_catalogue()
    reset_gateway()
    reset_carrier()
    reset_rewards()


@pytest.fixture()
def catalogue(fakes):
    return fakes.catalogue


@pytest.fixture()
def gateway(fakes):
    return fakes.gateway


@pytest.fixture()
def carrier(fakes):
    return fakes.carrier


@pytest.fixture()
def rewards(fakes):
    return fakes.rewards


@pytest.fixture()
def marketplace(catalogue):
    """Two vendors with valid addresses and a small mixed catalogue."""
    catalogue.add_vendor(
        "vendor-a",
        "Ada Gadgets",
        street="14 Broad Street, Marina",
        city="Lagos Island",
        state="Lagos",
        phone="+2348011111111",
        email="ada@gadgets.example.com",
    )
    catalogue.add_vendor(
        "vendor-b",
        "Bisi Books",
        street="7 Ring Road, Dugbe",
        city="Ibadan",
        state="Oyo",
        phone="+2348022222222",
        email="bisi@books.example.com",
    )
    catalogue.add_product("phone", "Smartphone", "vendor-a", 10000.0, stock=5, weight=0.5)
    catalogue.add_product("case", "Phone Case", "vendor-a", 1500.0, stock=20, weight=0.2)
    catalogue.add_product("novel", "Hardback Novel", "vendor-b", 4000.0, stock=3, weight=1.0)
    catalogue.add_product(
        "ebook",
        "Python Cookbook (eBook)",
        "vendor-b",
        5000.0,
        stock=0,
        product_type="digital",
        requires_license=True,
        license_type="single",
        download_url="https://cdn.example.com/ebooks/python-cookbook.pdf",
    )
    catalogue.add_product(
        "course",
        "Video Course",
        "vendor-a",
        8000.0,
        stock=0,
        product_type="DIGITAL",
        requires_license=True,
        license_type="lifetime",
        download_url="https://cdn.example.com/courses/video.zip",
    )
    catalogue.add_product("consult", "Setup Consultation", "vendor-a", 3000.0, stock=0, product_type="service")
    return catalogue


LAGOS_ADDRESS = {
    "full_name": "Chidi Okafor",
    "phone": "+2348033333333",
    "street": "22 Awolowo Road, Ikoyi",
    "city": "Ikoyi",
    "state": "Lagos",
    "country": "Nigeria",
}


@pytest.fixture()
def shipping_address():
    return json.dumps(LAGOS_ADDRESS)


@pytest.fixture()
def add_to_cart():
    def _add(customer_id, product_id, quantity=1):
        current_domain.process(
            AddToCart(customer_id=customer_id, product_id=product_id, quantity=quantity),
            asynchronous=False,
        )

    return _add


@pytest.fixture()
def fund_wallet():
    def _fund(customer_id, amount, reference=None):
        current_domain.process(
            CreditWallet(
                customer_id=customer_id,
                amount=amount,
                purpose="top_up",
                reference=reference or f"TOPUP-{customer_id}-{amount}",
            ),
            asynchronous=False,
        )

    return _fund
