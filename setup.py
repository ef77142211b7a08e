from setuptools import setup, find_packages

setup(
    name="pulse_monitor",
    version="0.2.0",
    description="Real-time fingertip PPG heart-rate estimation from camera brightness samples",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "numpy>=1.24",
        "scipy>=1.10",
    ],
    extras_require={
        "dev": ["pytest>=7.4"],
    },
    entry_points={
        "console_scripts": [
            "pulse-monitor=pulse_monitor.cli:main",
        ]
    },
)
