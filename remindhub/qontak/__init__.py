# remindhub/qontak/__init__.py
from .errors import QontakError, QontakConfigError, QontakTransportError
from .settings import QontakSettings, load_qontak_settings
from .client import QontakClient, QontakResponse
from .factory import get_qontak_client
