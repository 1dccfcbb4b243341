[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "ctrkit"
version = "0.1.0"
description = "CSR buffers, Criteo dataset conversion and a reference CPU sparse embedding for click-through-rate models"
requires-python = ">=3.10"
dependencies = ["numpy"]
keywords = ["ctr", "embedding", "csr", "criteo", "recommender", "sparse"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Artificial Intelligence",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
ctrkit-criteo = "ctrkit.criteo:main"

[tool.hatch.build.targets.wheel]
packages = ["ctrkit"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
