pytest_plugins = ["goldtape.pytest_plugin"]
