"""
Meter/Utility Calculator.

Pure functions: derive electricity/water charges from readings (metered
units) or from a fixed monthly amount (unmetered units). Nothing here
touches the database.
"""
from collections import namedtuple
from decimal import Decimal

from .exceptions import InvalidInput
from .utils import ZERO, quantize, to_decimal

UtilityCharge = namedtuple('UtilityCharge', ['units_used', 'units_billed', 'amount'])

UTILITY_KINDS = ('electricity', 'water')

# Unit attribute names per utility kind.
_UNIT_FIELDS = {
    'electricity': {
        'metered': 'is_metered',
        'rate': 'electricity_rate',
        'fixed': 'electricity_fixed_amount',
        'default_units': 'electricity_default_units',
        'initial': 'initial_electricity_reading',
    },
    'water': {
        'metered': 'is_water_metered',
        'rate': 'water_rate',
        'fixed': 'water_fixed_amount',
        'default_units': 'water_default_units',
        'initial': 'initial_water_reading',
    },
}


def unit_config(unit, kind):
    """Return the unit's metering settings for one utility kind."""
    if kind not in _UNIT_FIELDS:
        raise InvalidInput(f'Unknown utility "{kind}".')
    fields = _UNIT_FIELDS[kind]
    return {key: getattr(unit, attr) for key, attr in fields.items()}


def calculate_metered_charge(current_reading, previous_reading, rate, default_units=None):
    """
    Charge for consumption between two readings.

    A meter cannot run backwards: current < previous is rejected. When
    default_units is set and consumption does not exceed it, the default
    unit count is billed instead (minimum billing).
    """
    current = to_decimal(current_reading, 'current_reading')
    previous = to_decimal(previous_reading, 'previous_reading')
    rate = to_decimal(rate, 'rate', allow_none=True) or ZERO
    default_units = to_decimal(default_units, 'default_units', allow_none=True)

    if current < previous:
        raise InvalidInput(
            f'Current reading {current} is lower than previous reading {previous}.'
        )
    if rate < 0:
        raise InvalidInput('rate cannot be negative.')

    units_used = current - previous
    units_billed = units_used
    if default_units and units_used <= default_units:
        units_billed = default_units

    return UtilityCharge(units_used, units_billed, quantize(units_billed * rate))


def calculate_utility_amount(unit, kind, current_reading=None, previous_reading=None,
                             fixed_override=None):
    """
    Utility amount for a unit under its metering policy.

    Metered: readings are required; previous_reading falls back to the
    unit's initial reading. Unmetered: the bill's override or the unit's
    fixed amount.
    """
    config = unit_config(unit, kind)

    if not config['metered']:
        if fixed_override is not None:
            amount = to_decimal(fixed_override, f'{kind}_amount')
        else:
            amount = config['fixed'] or ZERO
        amount = quantize(amount)
        return UtilityCharge(ZERO, ZERO, amount)

    if current_reading is None:
        raise InvalidInput(f'A current {kind} reading is required for metered units.')
    if previous_reading is None:
        previous_reading = config['initial'] if config['initial'] is not None else Decimal('0')

    return calculate_metered_charge(
        current_reading, previous_reading, config['rate'], config['default_units']
    )
