import logging
import os
import platform

from configobj import ConfigObj, ConfigObjError, Section, flatten_errors
from validate import Validator

logger = logging.getLogger(__name__)

# The default extension for configuration files
config_extension = '.cfg'

# the packaged defaults and schema live beside this module
package_directory = os.path.dirname(os.path.abspath(__file__))

# the section holding the client settings
client_section = 'client'


class ClientSettings:
    """
    The settings used to build a client. The defaults here match lyre.default.cfg so that
    a ClientSettings can be used without loading any configuration.
    """
    def __init__(self):
        self.host = 'localhost'
        self.port = 6768
        self.port_file = '.lyre-port'
        self.max_transport_errors = 3
        self.connect_timeout = 5.0
        self.request_timeout = None
        self.eval_method = 'lyre/eval'
        self.handshake = True
        self.output_uri = 'lyre://SESSION/output'


def config_flavor(name, flavor=None):
    """
    >>> config_flavor('lyre')
    'lyre'
    >>> config_flavor('lyre', 'osx')
    'lyre.osx'
    """
    return name if not flavor else name + '.' + flavor


def config_filename(name, directory):
    return os.path.join(directory, name + config_extension)


def load_config_file_base(file, must_exist=True):
    """
    Loads a configuration file
    :param file:        The configuration file to load
    :param must_exist:  when True, the file must exist or an exception is thrown.
    :return: The ConfigObj instance for the file.
    """
    try:
        return ConfigObj(file, interpolation='Template', file_error=must_exist) \
            if must_exist or os.path.exists(file) else ConfigObj()
    except ConfigObjError as e:
        raise type(e)(str(e) + ' at ' + file) from e


def config_flavor_file(name, directory, flavor=None) -> ConfigObj:
    """
    Loads a flavor of a config file, e.g. lyre.default.cfg. Missing files give an empty config.
    """
    file = config_filename(config_flavor(name, flavor), directory)
    return load_config_file_base(file, must_exist=False)


def map_os_name(name):
    """
    >>> map_os_name('Windows')
    'windows'
    >>> map_os_name("Darwin")
    'osx'
    """
    name = name.lower()
    if name == 'darwin':
        name = 'osx'
    return name


def os_name():
    return map_os_name(platform.system())


def load_config(name='lyre', directory=package_directory, local_file=None, user_home=None):
    """
    Loads all the configuration files that relate to the given name.
    Later files override earlier ones:
    - the default flavor, <name>.default.cfg
    - the platform flavor, e.g. <name>.windows.cfg
    - the user override, ~/<name>.cfg
    - the local file, if given. This file must exist.
    The merged configuration is validated against <name>.schema.cfg, which also converts the
    values to their declared types.

    :param directory: the location of the default, platform and schema files
    :param local_file: an optional configuration file applied last
    :param user_home: the directory holding the user override. Defaults to the user's home.
    :raises ConfigObjError: if a file cannot be parsed or the result fails validation
    """
    default_config = config_flavor_file(name, directory, 'default')
    platform_config = config_flavor_file(name, directory, os_name())
    user_home = user_home or os.path.expanduser('~')
    user_config = load_config_file_base(config_filename(name, user_home), must_exist=False)

    config = ConfigObj(configspec=config_filename(config_flavor(name, 'schema'), directory))
    config.merge(default_config)
    config.merge(platform_config)
    config.merge(user_config)
    if local_file:
        config.merge(load_config_file_base(local_file))

    result = config.validate(Validator(), preserve_errors=True)
    if result is not True:
        failures = []
        for sections, key, error in flatten_errors(config, result):
            failures.append('%s: %s' % ('.'.join(sections + [key or '']), error or 'missing'))
        raise ConfigObjError("the config file %s failed validation: %s" % (name, '; '.join(failures)))
    return config


def fetch_conf_path(conf: Section, path):
    """
    Retrieves the configuration section at the given path.
    :param path: an iterable of section names
    :return: the section, or None if any part of the path is missing.
    """
    for p in path:
        conf = conf.get(p, None)
        if conf is None:
            return None
    return conf


def apply_conf(conf: Section, target):
    """
    Copies each configured value onto the attribute of the same name on target.
    Values with no matching attribute are ignored.
    """
    for k, v in conf.items():
        if hasattr(target, k):
            setattr(target, k, v)
        else:
            logger.debug("ignoring unknown setting '%s'" % k)


def load_settings(local_file=None, name='lyre', directory=package_directory, user_home=None) -> ClientSettings:
    """
    Loads the layered configuration and applies its client section to a new ClientSettings.
    """
    settings = ClientSettings()
    conf = fetch_conf_path(load_config(name, directory, local_file, user_home), [client_section])
    if conf:
        apply_conf(conf, settings)
    return settings
