"""Setup configuration for teamcity_collector"""

from setuptools import setup, find_packages

setup(
    name="teamcity-collector",
    version="0.1.0",
    description=(
        "Polling collector that discovers TeamCity projects and builds and "
        "normalizes build status, branches and source changesets."
    ),
    author="TeamCity Collector Contributors",
    author_email="",
    python_requires=">=3.10",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    install_requires=[
        "requests>=2.28.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
        "dev": [
            "pytest>=7.0",
            "black>=22.0",
            "flake8>=4.0",
            "mypy>=0.950",
        ],
    },
    entry_points={
        "console_scripts": [
            "teamcity-collector=teamcity_collector.main:main",
        ],
    },
)
