[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "routedns"
version = "0.1.0"
description = "Composable DNS resolver building blocks: routing, groups, query and response modifiers, rate limiting and logging"
requires-python = ">=3.10"
dependencies = [
    "dnspython",
]
keywords = ["dns", "resolver", "router", "edns0", "ecs", "padding", "rate-limit"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: Name Service (DNS)",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["routedns"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
