from collections import namedtuple

from all_camera_viewer.errors import ConfigError
from all_camera_viewer.topology import resolve


REQUIRED_FLAGS = ('use_tof_camera', 'use_right_color_camera', 'use_left_color_camera')

DEFAULTS = {
    'queue_size': 3,
    'slop': 0.05,
    'output_dir': '.',
    'image_extension': '.bmp',
    'show_images': True,
    'display_scale': 0.5,
    'use_camera_info': False,
    'consumer_poll_period': 1.0,
    'log_every': 50,
}


ViewerConfig = namedtuple('ViewerConfig', [
    'topology',
    'use_tof_camera',
    'use_right_color_camera',
    'use_left_color_camera',
] + list(DEFAULTS))


def _as_bool(name, value):
    if isinstance(value, bool):
        return value
    raise ConfigError(f"'{name}' must be a boolean, got {value!r}")


def parse_parameters(values):
    """Build a ViewerConfig from parameter values.

    ``values`` maps parameter names to values; a required camera flag that
    is absent or None raises ConfigError naming it.
    """
    flags = {}
    for name in REQUIRED_FLAGS:
        if values.get(name) is None:
            raise ConfigError(f"'{name}' not specified")
        flags[name] = _as_bool(name, values[name])

    topology = resolve(flags['use_left_color_camera'],
                       flags['use_right_color_camera'],
                       flags['use_tof_camera'])

    options = {}
    for name, default in DEFAULTS.items():
        value = values.get(name)
        options[name] = default if value is None else value

    try:
        options['queue_size'] = int(options['queue_size'])
        options['slop'] = float(options['slop'])
        options['display_scale'] = float(options['display_scale'])
        options['consumer_poll_period'] = float(options['consumer_poll_period'])
        options['log_every'] = int(options['log_every'])
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid parameter value: {e}") from e
    options['show_images'] = _as_bool('show_images', options['show_images'])
    options['use_camera_info'] = _as_bool('use_camera_info', options['use_camera_info'])
    options['output_dir'] = str(options['output_dir'])
    options['image_extension'] = str(options['image_extension'])

    if options['queue_size'] < 1:
        raise ConfigError(f"'queue_size' must be at least 1, got {options['queue_size']}")
    if options['slop'] < 0:
        raise ConfigError(f"'slop' must not be negative, got {options['slop']}")
    if options['display_scale'] <= 0:
        raise ConfigError(f"'display_scale' must be positive, got {options['display_scale']}")
    if options['consumer_poll_period'] <= 0:
        raise ConfigError("'consumer_poll_period' must be positive")
    if options['log_every'] < 1:
        raise ConfigError(f"'log_every' must be at least 1, got {options['log_every']}")

    return ViewerConfig(topology=topology, **flags, **options)


def tolerance_ns(config):
    return int(round(config.slop * 1e9))
