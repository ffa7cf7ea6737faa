"""Note store core: models, identifiers, storage backends, broadcaster, sweeper."""
