"""
Kernel-side runtime settings for the transfer orchestrator and lifecycle
service.  Built from YAML by ``asset_config.bridges``; the kernel itself
never reads configuration files.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class KernelSettings:
    order_number_prefix: str = "TO"
    bulk_order_number_prefix: str = "TO-MT"
    order_number_padding: int = 3
    receive_link_template: str = "/receive-orders?orderId={order_id}"
    order_link_template: str = "/transfer-orders?orderId={order_id}"
    machine_link_template: str = "/maintenance/machines?serial={serial_number}"

    def receive_link(self, order_id) -> str:
        return self.receive_link_template.format(order_id=order_id)

    def order_link(self, order_id) -> str:
        return self.order_link_template.format(order_id=order_id)

    def machine_link(self, serial_number: str) -> str:
        return self.machine_link_template.format(serial_number=serial_number)


DEFAULT_SETTINGS = KernelSettings()
