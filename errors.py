class DarkTrackError(Exception):
    '''Base class for every error raised by DarkTrack.'''


class ConfigurationError(DarkTrackError, ValueError):
    '''Missing or invalid parameters, or input arrays of the wrong size.'''


class ResourceUnavailable(DarkTrackError, RuntimeError):
    '''A requested execution backend cannot be used on this machine.'''
