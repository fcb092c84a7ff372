import setuptools

VERSION = '0.1.0'

setup_params = dict(
    name='fetchcache',
    version=VERSION,
    keywords='requests cache fetch',
    packages=setuptools.find_packages(exclude=['tests', 'tests.*']),
    package_dir={'fetchcache': 'fetchcache'},
    include_package_data=True,
    description='A caching fetch() for the requests library and Python 3',
    long_description=open('README.md').read(),
    long_description_content_type='text/markdown',
    install_requires=['requests>=2.25'],
    extras_require={
        'redis': ['redis>=4.0'],
        'dev': [
            'redis>=4.0',
            'mockito>=1.2',
            'pytest>=7.0',
            'pytest-cov>=4.0',
            'ddt>=1.4',
        ],
    },
    entry_points={},
    python_requires='>=3.7',
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Environment :: Web Environment',
        'Intended Audience :: Developers',
        'Natural Language :: English',
        'Operating System :: OS Independent',

        'Programming Language :: Python',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3 :: Only',
    ],
)


if __name__ == '__main__':
    setuptools.setup(**setup_params)
