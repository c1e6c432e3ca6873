[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "gator"
version = "0.1.0"
description = "A small RSS feed aggregator: register users, follow feeds, collect and browse posts."
requires-python = ">=3.10"
dependencies = []
keywords = ["rss", "feed", "aggregator", "news", "sqlite"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: Dynamic Content :: News/Diary",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["gator"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
