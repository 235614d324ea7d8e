"""Purchase order status derivation from its lines."""
from types import SimpleNamespace

from tradeflow.models import POStatus
from tradeflow.services.receiving_service import derive_po_status


def _line(ordered, received):
    return SimpleNamespace(qty_ordered=ordered, qty_received=received)


class TestDerivePOStatus:

    def test_nothing_received(self):
        assert derive_po_status([_line(10, 0), _line(5, 0)]) == POStatus.ORDERED.value

    def test_partial(self):
        assert derive_po_status([_line(10, 10), _line(5, 2)]) == POStatus.PARTIAL_RECEIVED.value

    def test_all_received(self):
        assert derive_po_status([_line(10, 10), _line(5, 5)]) == POStatus.RECEIVED.value

    def test_over_received_counts_as_received(self):
        assert derive_po_status([_line(10, 12)]) == POStatus.RECEIVED.value
