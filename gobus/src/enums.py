from enum import IntEnum


class AppID(IntEnum):
    OWNER = 1
    DRIVER = 2
    CUSTOMER = 3
    PUBLIC = 4


class OrderIn(IntEnum):
    ASC = 1
    DESC = 2


class Role(IntEnum):
    CUSTOMER = 1
    OWNER = 2


class PlatformType(IntEnum):
    OTHER = 1
    WEB = 2
    NATIVE = 3
    SERVER = 4


class Day(IntEnum):
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6
    SUNDAY = 7


class TicketStatus(IntEnum):
    ACTIVE = 1
    USED = 2
    EXPIRED = 3


class TicketType(IntEnum):
    NORMAL = 1
    DAILY_PASS = 2


class DriverAction(IntEnum):
    BULK_CREATE = 1
    CREATE_ONE = 2
