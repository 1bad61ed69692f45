[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "throttlekit"
version = "0.1.0"
description = "Token bucket, leaky bucket and concurrency limiters with blocking waits and reservations"
requires-python = ">=3.10"
dependencies = []
keywords = ["rate limiting", "token bucket", "leaky bucket", "semaphore", "throttling"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["throttlekit"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
