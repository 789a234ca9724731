"""Entry point for `python -m kuberev`.

Usage:
    python -m kuberev
    KUBEREV_TARGET_NAMESPACE=openshift-kube-apiserver KUBEREV_CONFIGMAPS=kube-apiserver-pod,config python -m kuberev
"""

from __future__ import annotations

import asyncio

from kuberev.app import main

asyncio.run(main())
