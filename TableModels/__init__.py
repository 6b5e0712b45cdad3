from .base import Base
from .silo import SiloRecord
from .inbound_movement import InboundRecord
from .outbound_movement import OutboundRecord
