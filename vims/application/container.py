"""
Service wiring.

One Services instance lives on ``app.state`` for the whole process; route
dependencies read use cases from it.
"""

from dataclasses import dataclass

from vims.application.blacklist import BlacklistService
from vims.application.checkpoint import AccessControlService
from vims.application.dashboard import DashboardService
from vims.application.lpr import DuplicateSuppressor, LprService
from vims.application.notifications import NotificationService
from vims.application.registration import RegistrationService
from vims.application.store import Store
from vims.application.vip import VipService
from vims.core.config import Settings
from vims.infrastructure.ml.ocr import EasyOCREngine, IdCardReader, OCREngine, PlateReader
from vims.infrastructure.notify import EmailNotifier


@dataclass
class Services:
    store: Store
    notifier: EmailNotifier
    notifications: NotificationService
    registration: RegistrationService
    access: AccessControlService
    lpr: LprService
    blacklist: BlacklistService
    vips: VipService
    dashboard: DashboardService
    id_reader: IdCardReader
    plate_reader: PlateReader


def build_services(
    settings: Settings,
    store: Store,
    notifier: EmailNotifier,
    ocr_engine: OCREngine | None = None,
) -> Services:
    """
    Wire every use case around one Store.

    Args:
        settings: Application settings.
        store: Record store shared by all services.
        notifier: E-mail relay client.
        ocr_engine: Text reader; EasyOCR when omitted (loaded on first use).
    """
    engine = ocr_engine or EasyOCREngine(settings.ocr_languages, gpu=settings.ocr_gpu)
    plate_reader = PlateReader(engine, min_length=settings.lpr_min_plate_length)
    notifications = NotificationService(store, notifier)
    access = AccessControlService(store)
    return Services(
        store=store,
        notifier=notifier,
        notifications=notifications,
        registration=RegistrationService(store, notifications),
        access=access,
        lpr=LprService(
            store,
            access,
            suppressor=DuplicateSuppressor(window_seconds=settings.lpr_duplicate_window_seconds),
            plate_reader=plate_reader,
            min_plate_length=settings.lpr_min_plate_length,
        ),
        blacklist=BlacklistService(store),
        vips=VipService(store),
        dashboard=DashboardService(store),
        id_reader=IdCardReader(engine),
        plate_reader=plate_reader,
    )
