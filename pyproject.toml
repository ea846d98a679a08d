[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "cgroupkit"
version = "0.0.1"
description = "Manage Linux cgroup v2 hierarchies, resource limits and device rules for containers"
requires-python = ">=3.10"
dependencies = []
keywords = ["cgroups", "cgroup-v2", "containers", "linux", "systemd", "oci", "resources", "ebpf"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Operating System Kernels :: Linux",
]

[project.optional-dependencies]
test = [
    "pytest",
    "hypothesis",
]

[project.scripts]
cgroupkit-info = "cgroupkit.info:main"

[tool.hatch.build.targets.wheel]
packages = ["cgroupkit"]

[tool.pytest.ini_options]
testpaths = ["tests"]
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
