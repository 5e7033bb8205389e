from .user import User
from .holding import Holding
