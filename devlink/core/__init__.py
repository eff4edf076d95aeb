"""Core building blocks of devlink: types, settings, logging and config."""
