"""Wire every service from settings."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from pydantic import SecretStr

from timecredit_chain.credentials import export_credential, generate_account
from timecredit_chain.executor import TransactionExecutor
from timecredit_chain.factory import create_executor, create_network, create_owner_signer
from timecredit_chain.network import ValueNetwork
from timecredit_chain.owner import OwnerSigner
from timecredit_chain.simulated import SimulatedNetwork
from timecredit_core.accrual import AttendanceAccrualComputer
from timecredit_core.config import TimeCreditSettings, load_settings
from timecredit_core.logging import configure_logging
from timecredit_ledger.base import Ledger
from timecredit_ledger.catalog import ContractProductCatalog, InMemoryProductCatalog, ProductCatalog
from timecredit_ledger.contract import ContractLedger
from timecredit_ledger.memory import InMemoryLedger
from timecredit_ledger.simulated import CatalogContractHandler

from .attendance import AccessLogStore, AttendanceTracker, CardDirectory, InMemoryCardDirectory
from .catalog_service import CatalogService, DirectoryImageSource, ImageSource
from .checkout import CheckoutAccrualService
from .purchase import PurchaseSettlement
from .registration import EmployeeRegistrar
from .withdrawal import TransactionOrchestrator

logger = logging.getLogger(__name__)

# catalog address used on the simulated network when none is configured
SIMULATED_CATALOG_ADDRESS = "0x000000000000000000000000000000000000ca7a"


@dataclass(slots=True)
class ServiceContainer:
    settings: TimeCreditSettings
    network: ValueNetwork
    executor: TransactionExecutor
    owner_signer: OwnerSigner
    ledger: Ledger
    catalog: ProductCatalog
    catalog_address: str
    withdrawals: TransactionOrchestrator
    purchases: PurchaseSettlement
    accrual: CheckoutAccrualService
    attendance: AttendanceTracker
    registrar: EmployeeRegistrar
    catalog_service: CatalogService
    access_log: AccessLogStore

    async def close(self) -> None:
        self.access_log.close()
        await self.network.close()


def _owner_signer(settings: TimeCreditSettings, network: ValueNetwork, executor: TransactionExecutor) -> OwnerSigner:
    if not settings.owner_private_key.get_secret_value() and isinstance(network, SimulatedNetwork):
        account = generate_account()
        logger.warning("[SIMULATED] No owner key configured; using ephemeral owner %s", account.address)
        signer = OwnerSigner(executor, SecretStr(export_credential(account)))
    else:
        signer = create_owner_signer(settings, executor)
    if isinstance(network, SimulatedNetwork):
        network.fund(signer.address, settings.simulated_owner_funding_minor)
    return signer


def build_container(
    settings: Optional[TimeCreditSettings] = None,
    *,
    card_directory: Optional[CardDirectory] = None,
    image_source: Optional[ImageSource] = None,
    setup_logging: bool = False,
) -> ServiceContainer:
    """Build the service graph for the configured chain mode.

    Simulated mode keeps ledger and catalog in memory and registers the
    catalog handler on the in-process network, so purchases still move
    value. Live mode talks to the deployed contracts.
    """
    settings = settings or load_settings()
    if setup_logging:
        configure_logging(settings.log_level, json_format=settings.log_json)
    network = create_network(settings)
    executor = create_executor(settings, network)
    signer = _owner_signer(settings, network, executor)

    if isinstance(network, SimulatedNetwork):
        ledger: Ledger = InMemoryLedger(signer.address, network=network)
        memory_catalog = InMemoryProductCatalog(signer.address)
        catalog_address = settings.catalog_contract_address or SIMULATED_CATALOG_ADDRESS
        network.register_contract(catalog_address, CatalogContractHandler(memory_catalog))
        catalog: ProductCatalog = memory_catalog
    else:
        ledger = ContractLedger(
            network, signer, settings.ledger_contract_address, gas_limit=settings.ledger_call_gas_limit,
        )
        catalog_address = settings.catalog_contract_address
        catalog = ContractProductCatalog(
            network, signer, catalog_address, gas_limit=settings.ledger_call_gas_limit,
        )

    if image_source is None and settings.product_image_dir:
        image_source = DirectoryImageSource(settings.product_image_dir)

    accrual = CheckoutAccrualService(
        ledger=ledger,
        owner_signer=signer,
        computer=AttendanceAccrualComputer(settings.rate_per_minute_minor),
        pay_on_accrual=settings.pay_on_accrual,
        transfer_gas_units=settings.transfer_gas_units,
    )
    access_log = AccessLogStore(settings.access_log_dsn)

    logger.info(
        "TimeCredit services ready (chain_mode=%s, owner=%s)", settings.chain_mode, signer.address,
    )
    return ServiceContainer(
        settings=settings,
        network=network,
        executor=executor,
        owner_signer=signer,
        ledger=ledger,
        catalog=catalog,
        catalog_address=catalog_address,
        withdrawals=TransactionOrchestrator(
            ledger=ledger,
            executor=executor,
            owner_signer=signer,
            collection_address=settings.collection_address or None,
            fiat_currency=settings.fiat_currency,
            fiat_rate=settings.fiat_rate_per_unit,
            transfer_gas_units=settings.transfer_gas_units,
        ),
        purchases=PurchaseSettlement(
            ledger=ledger,
            catalog=catalog,
            executor=executor,
            owner_signer=signer,
            catalog_address=catalog_address,
        ),
        accrual=accrual,
        attendance=AttendanceTracker(
            directory=card_directory or InMemoryCardDirectory(),
            store=access_log,
            accrual=accrual,
        ),
        registrar=EmployeeRegistrar(
            ledger=ledger,
            owner_signer=signer,
            funding_minor=settings.registration_funding_minor,
            transfer_gas_units=settings.transfer_gas_units,
        ),
        catalog_service=CatalogService(catalog=catalog, image_source=image_source),
        access_log=access_log,
    )
