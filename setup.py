# -*- coding: utf-8 -*-
from setuptools import setup

packages = \
['hwiclient',
 'hwiclient.backends']

package_data = \
{'': ['*']}

install_requires = \
['semver>=3.0.1,<4.0.0',
 'typing-extensions>=4.4,<5.0']

extras_require = \
{'hwilib': ['hwi>=2.0.0,<4.0.0']}

entry_points = \
{'console_scripts': ['hwiclient = hwiclient._cli:main']}

setup_kwargs = {
    'name': 'hwi-client',
    'version': '0.1.0',
    'description': 'A typed client for the Bitcoin Hardware Wallet Interface',
    'long_description': "# HWI Client\n\nA typed Python client for the [Bitcoin Hardware Wallet Interface](https://github.com/bitcoin-core/HWI).\nDevices are enumerated and bound to client handles. Every operation takes validated arguments and returns a typed result.\nFailures are raised as exceptions with one of a small set of categories.\n\nHWI can be reached in two ways:\n\n* `python`: calls `hwilib` in the same interpreter. Install with `pip3 install hwi-client[hwilib]`.\n* `binary`: runs the `hwi` executable and parses its JSON output.\n\n## Usage\n\n```\nfrom hwiclient.commands import enumerate, bind\nfrom hwiclient.common import Chain\n\nfor device in enumerate():\n    with bind(device, chain=Chain.TEST) as client:\n        print(client.get_xpub(\"m/84h/1h/0h\").xpub)\n```\n\nThe `hwiclient` command line tool takes the same arguments as `hwi` and prints JSON.\n\n## License\n\nThis project is available under the MIT License.\n",
    'long_description_content_type': 'text/markdown',
    'author': 'None',
    'author_email': 'None',
    'maintainer': 'None',
    'maintainer_email': 'None',
    'url': 'None',
    'packages': packages,
    'package_data': package_data,
    'install_requires': install_requires,
    'extras_require': extras_require,
    'entry_points': entry_points,
    'python_requires': '>=3.8',
}


setup(**setup_kwargs)
