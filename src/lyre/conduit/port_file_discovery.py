import logging
import os

from lyre.conduit.discovery import PolledResourceDiscovery
from lyre.support.mixins import CommonEqualityMixin

logger = logging.getLogger(__name__)

# directories that are never searched for port files
skipped_directories = frozenset(('.git', '.hg', '.svn', 'node_modules', '__pycache__'))


class PortFile(CommonEqualityMixin):
    """ A port file found on disk. Two PortFiles are equal when the file has not been modified in between. """
    def __init__(self, path, modified):
        self.path = path
        self.modified = modified


class PortFileDiscovery(PolledResourceDiscovery):
    """
    Finds port files anywhere under a project root. A file is reported available when it first appears
    and again each time its modification time changes, and unavailable when it is deleted.
    The resources are PortFile instances keyed by path.

    :param root: the directory to search
    :param file_name: the name of the port file
    """
    def __init__(self, root, file_name='.lyre-port'):
        super().__init__()
        self.root = root
        self.file_name = file_name

    def _fetch_available(self):
        found = {}
        for directory, subdirectories, files in os.walk(self.root):
            subdirectories[:] = [d for d in subdirectories if d not in skipped_directories]
            if self.file_name in files:
                path = os.path.join(directory, self.file_name)
                try:
                    found[path] = PortFile(path, os.stat(path).st_mtime_ns)
                except OSError as e:
                    # deleted between listing and stat
                    logger.debug("cannot stat %s: %s" % (path, e))
        return found
