"""
Setup script for eurocluster package.
"""

from setuptools import setup, find_packages

setup(
    name="eurocluster",
    version="0.1.0",
    packages=find_packages(include=["eurocluster", "eurocluster.*"]),
    install_requires=[
        # Core numerical dependencies
        "numpy>=1.20.0",
        "pandas>=1.3.0",
        "scipy>=1.7.0",

        # Utilities
        "pyyaml>=6.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=6.0.0",
            "scikit-learn>=1.0.0",
        ],
    },
    entry_points={
        'console_scripts': [
            'eurocluster=eurocluster.__main__:main',
        ],
    },
    description="K-means clustering of labelled tabular data with elbow, silhouette and gap statistic diagnostics",
    keywords="clustering, k-means, silhouette, gap statistic",
    python_requires=">=3.8",
)
