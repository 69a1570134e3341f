from django.apps import AppConfig
from django.utils.translation import gettext_lazy as _


class StoremanConfig(AppConfig):
    name = "storeman"
    verbose_name = _("Shop Catalog")

    def ready(self):
        from storeman.conf import reset_image_store, reset_storage_gateway
        from django.core.signals import setting_changed

        def _reset_backends(setting, **kwargs):
            if setting == "STOREMAN":
                reset_storage_gateway()
                reset_image_store()

        setting_changed.connect(_reset_backends, weak=False, dispatch_uid="storeman_reset_backends")
