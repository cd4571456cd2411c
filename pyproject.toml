[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "pixiu-samples"
version = "1.0.0"
description = "Sample backend services, load and shutdown fixtures, and a small control plane for exercising an API gateway"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "gateway",
    "http",
    "wsgi",
    "sample-services",
    "tcc",
    "xds",
    "load-testing",
]
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
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
    "Topic :: Software Development :: Testing",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
pixiu-simple-http = "pixiu_samples.simple_http:main"
pixiu-slow-server = "pixiu_samples.shutdown:main"
pixiu-loadtest = "pixiu_samples.loadtest:main"
pixiu-seata = "pixiu_samples.seata:main"
pixiu-xds = "pixiu_samples.xds:main"

[tool.hatch.build.targets.wheel]
packages = ["pixiu_samples"]

[tool.hatch.build.targets.sdist]
include = ["pixiu_samples", "tests", "README.md", "pyproject.toml"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
